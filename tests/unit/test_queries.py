"""
Tests for the SQL builders.
"""

import pytest

from policyledger.services.queries import (
    DEFAULT_LIMIT,
    Query,
    build_insert,
    build_select_current,
)


VIEW = "proj.ds.currentPolicy"
ACCOUNT_VIEW = "proj.ds.currentAccount"
FIELDS = ["policyId", "name", "datasets", "isDeleted", "createdAt"]


class TestBuildInsert:
    """Tests for build_insert."""

    def test_insert_sql(self):
        """Test column list and placeholders follow the field order."""
        query = build_insert(
            "proj.ds.policy",
            ["rowId", "policyId", "isDeleted"],
            {"rowId": "r1", "policyId": "p1", "isDeleted": False},
        )

        assert query.sql == (
            "INSERT INTO `proj.ds.policy` (rowId,policyId,isDeleted) "
            "VALUES (:rowId,:policyId,:isDeleted)"
        )
        assert query.params == {"rowId": "r1", "policyId": "p1", "isDeleted": False}

    def test_missing_fields_bound_as_null(self):
        """Test fields absent from data are bound as None."""
        query = build_insert("proj.ds.policy", ["rowId", "description"], {"rowId": "r1"})

        assert query.params == {"rowId": "r1", "description": None}

    def test_extra_keys_not_sent(self):
        """Test keys outside the field list are dropped from params."""
        query = build_insert("proj.ds.policy", ["rowId"], {"rowId": "r1", "extra": "x"})

        assert query.params == {"rowId": "r1"}
        assert "extra" not in query.sql

    def test_values_never_in_sql(self):
        """Test that caller values are bound, not interpolated."""
        query = build_insert(
            "proj.ds.policy", ["name"], {"name": "x'); DROP TABLE policy; --"}
        )

        assert "DROP" not in query.sql
        assert query.params["name"] == "x'); DROP TABLE policy; --"

    def test_invalid_field_name(self):
        """Test that a field name with SQL in it is rejected."""
        with pytest.raises(ValueError):
            build_insert("proj.ds.policy", ["name; DROP"], {})

    def test_invalid_table_name(self):
        """Test that a table name with a backtick is rejected."""
        with pytest.raises(ValueError):
            build_insert("proj.ds.policy`", ["name"], {})

    def test_empty_fields(self):
        """Test that an empty field list is rejected."""
        with pytest.raises(ValueError):
            build_insert("proj.ds.policy", [], {})


class TestBuildSelectCurrent:
    """Tests for build_select_current."""

    def test_unscoped(self):
        """Test the unscoped list is limited to the page size."""
        query = build_select_current(VIEW, FIELDS)

        assert query.sql == (
            "SELECT policyId,name,datasets,isDeleted,createdAt "
            "FROM `proj.ds.currentPolicy` LIMIT 10;"
        )
        assert query.params == {}
        assert DEFAULT_LIMIT == 10

    def test_custom_limit(self):
        """Test the page size can be overridden."""
        query = build_select_current(VIEW, FIELDS, limit=25)

        assert query.sql.endswith("LIMIT 25;")

    def test_dataset_scoped(self):
        """Test the dataset filter unnests the datasets array."""
        query = build_select_current(VIEW, FIELDS, dataset_id="sales")

        assert "UNNEST(datasets) AS datasets" in query.sql
        assert "WHERE datasets.datasetId = :datasetId" in query.sql
        assert query.sql.endswith("LIMIT 10;")
        assert query.params == {"datasetId": "sales"}

    def test_account_scoped(self):
        """Test the account filter joins the account view and hides isDeleted."""
        query = build_select_current(
            VIEW, FIELDS, account_id="acct-1", account_view=ACCOUNT_VIEW
        )

        assert "FROM `proj.ds.currentAccount` ca" in query.sql
        assert "CROSS JOIN UNNEST(policies) policies" in query.sql
        assert "WHERE accountId = :accountId" in query.sql
        assert "(ca.isDeleted IS false OR ca.isDeleted IS null)" in query.sql
        assert "LEFT JOIN currentAccount ca ON ca.policyId = cp.policyId" in query.sql
        assert "WHERE (cp.isDeleted IS false OR cp.isDeleted IS null)" in query.sql
        assert "SELECT cp.policyId,cp.name,cp.datasets,cp.createdAt\n" in query.sql
        assert "cp.isDeleted," not in query.sql
        assert query.params == {"accountId": "acct-1"}

    def test_account_scoped_does_not_mutate_fields(self):
        """Test that isDeleted stays in the caller's field list."""
        fields = list(FIELDS)
        build_select_current(VIEW, fields, account_id="acct-1", account_view=ACCOUNT_VIEW)

        assert "isDeleted" in fields

    def test_account_scoped_requires_account_view(self):
        """Test that the account view is mandatory for account filters."""
        with pytest.raises(ValueError):
            build_select_current(VIEW, FIELDS, account_id="acct-1")

    def test_point_lookup(self):
        """Test the policyId filter is a single-row lookup."""
        query = build_select_current(VIEW, FIELDS, policy_id="p-1")

        assert query.sql == (
            "SELECT policyId,name,datasets,isDeleted,createdAt "
            "FROM `proj.ds.currentPolicy` WHERE policyId = :policyId LIMIT 1;"
        )
        assert query.params == {"policyId": "p-1"}

    def test_dataset_takes_precedence_over_account(self):
        """Test that the dataset filter wins when both are given."""
        query = build_select_current(
            VIEW, FIELDS, dataset_id="sales", account_id="acct-1", account_view=ACCOUNT_VIEW
        )

        assert query.params == {"datasetId": "sales"}

    def test_query_defaults(self):
        """Test Query defaults to no params."""
        assert Query(sql="SELECT 1").params == {}


class TestSqliteDialect:
    """Tests for the json_each forms used on SQLite."""

    def test_dataset_scoped_sqlite(self):
        """Test the dataset filter expands the JSON datasets column."""
        query = build_select_current(VIEW, FIELDS, dataset_id="sales", dialect="sqlite")

        assert query.sql == (
            "SELECT cp.policyId,cp.name,cp.datasets,cp.isDeleted,cp.createdAt "
            "FROM `proj.ds.currentPolicy` cp, json_each(cp.datasets) AS ds "
            "WHERE json_extract(ds.value, '$.datasetId') = :datasetId LIMIT 10;"
        )
        assert query.params == {"datasetId": "sales"}
        assert "UNNEST" not in query.sql

    def test_account_scoped_sqlite(self):
        """Test the account filter expands the JSON policies column."""
        query = build_select_current(
            VIEW, FIELDS, account_id="acct-1", account_view=ACCOUNT_VIEW, dialect="sqlite"
        )

        assert "CROSS JOIN json_each(ca.policies) policies" in query.sql
        assert "json_extract(policies.value, '$.policyId') AS policyId" in query.sql
        assert "UNNEST" not in query.sql
        assert "WHERE (cp.isDeleted IS false OR cp.isDeleted IS null)" in query.sql

    def test_point_lookup_same_on_sqlite(self):
        """Test that modes without arrays do not depend on the dialect."""
        assert (
            build_select_current(VIEW, FIELDS, policy_id="p-1", dialect="sqlite").sql
            == build_select_current(VIEW, FIELDS, policy_id="p-1").sql
        )
