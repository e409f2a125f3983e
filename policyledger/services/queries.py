"""
SQL builders for the append-only policy table and the current-policy view.

Only identifiers (relation and field names) are interpolated into the SQL
text; they come from configuration. Every value travels as a named bound
parameter (``:name``), so caller input never reaches the statement text.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional


DEFAULT_LIMIT = 10

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_RELATION_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass
class Query:
    """A parameterized statement ready for the warehouse client."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)


def _check_fields(fields: Iterable[str]) -> list[str]:
    fields = list(fields)
    if not fields:
        raise ValueError("Field list must not be empty")
    for name in fields:
        if not _FIELD_RE.match(name):
            raise ValueError(f"Invalid field name: {name!r}")
    return fields


def _check_relation(relation: str) -> str:
    if not relation or not _RELATION_RE.match(relation):
        raise ValueError(f"Invalid relation name: {relation!r}")
    return relation


def build_insert(table: str, fields: Iterable[str], data: Mapping[str, Any]) -> Query:
    """
    Build a single-row INSERT into the append-only table.

    Args:
        table: Fully-qualified table name.
        fields: Ordered write schema; defines the column list and placeholders.
        data: Row values. Fields missing from data are bound as NULL and keys
              outside the field list are not sent.

    Returns:
        The INSERT query.
    """
    table = _check_relation(table)
    fields = _check_fields(fields)

    columns = ",".join(fields)
    placeholders = ",".join(f":{name}" for name in fields)
    sql = f"INSERT INTO `{table}` ({columns}) VALUES ({placeholders})"
    params = {name: data.get(name) for name in fields}
    return Query(sql=sql, params=params)


def build_select_current(
    view: str,
    fields: Iterable[str],
    *,
    policy_id: Optional[str] = None,
    dataset_id: Optional[str] = None,
    account_id: Optional[str] = None,
    account_view: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    dialect: str = "bigquery",
) -> Query:
    """
    Build a SELECT against the current-policy view.

    Filter modes, first match wins:
    - policy_id: point lookup, LIMIT 1
    - dataset_id: unnest the ``datasets`` array column and match its
      ``datasetId``, LIMIT ``limit``
    - account_id: policies linked to a non-deleted account (needs
      ``account_view``); ``isDeleted`` is left out of the projection
    - none: first ``limit`` rows of the view

    With ``dialect="sqlite"`` the array columns are JSON text and are
    expanded with ``json_each`` instead of ``UNNEST``.

    Returns:
        The SELECT query.
    """
    view = _check_relation(view)
    fields = _check_fields(fields)

    if policy_id is not None:
        sql = (
            f"SELECT {','.join(fields)} FROM `{view}` "
            f"WHERE policyId = :policyId LIMIT 1;"
        )
        return Query(sql=sql, params={"policyId": policy_id})

    if dataset_id and dialect == "sqlite":
        projection = ",".join(f"cp.{name}" for name in fields)
        sql = (
            f"SELECT {projection} FROM `{view}` cp, json_each(cp.datasets) AS ds "
            f"WHERE json_extract(ds.value, '$.datasetId') = :datasetId LIMIT {int(limit)};"
        )
        return Query(sql=sql, params={"datasetId": dataset_id})

    if dataset_id:
        sql = (
            f"SELECT {','.join(fields)} FROM `{view}`, UNNEST(datasets) AS datasets "
            f"WHERE datasets.datasetId = :datasetId LIMIT {int(limit)};"
        )
        return Query(sql=sql, params={"datasetId": dataset_id})

    if account_id:
        if account_view is None:
            raise ValueError("account_view is required for an account-scoped query")
        account_view = _check_relation(account_view)
        projection = ",".join(f"cp.{name}" for name in fields if name != "isDeleted")
        if dialect == "sqlite":
            linked = (
                "SELECT json_extract(policies.value, '$.policyId') AS policyId\n"
                f"    FROM `{account_view}` ca\n"
                "    CROSS JOIN json_each(ca.policies) policies"
            )
        else:
            linked = (
                "SELECT policies.policyId\n"
                f"    FROM `{account_view}` ca\n"
                "    CROSS JOIN UNNEST(policies) policies"
            )
        sql = f"""WITH currentAccount AS (
    {linked}
    WHERE accountId = :accountId AND
        (ca.isDeleted IS false OR ca.isDeleted IS null)
)
SELECT {projection}
FROM `{view}` cp
LEFT JOIN currentAccount ca ON ca.policyId = cp.policyId
WHERE (cp.isDeleted IS false OR cp.isDeleted IS null)"""
        return Query(sql=sql, params={"accountId": account_id})

    sql = f"SELECT {','.join(fields)} FROM `{view}` LIMIT {int(limit)};"
    return Query(sql=sql)
