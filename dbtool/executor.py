"""
Statement and query execution through the mysql client.
"""

import logging
import re
import xml.etree.ElementTree as ElementTree
from typing import Optional

from .command_builder import CommandBuilder, mysql_quote
from .connection import Runner
from .exceptions import QueryParseError
from .models import QueryResult, Row
from .process import run_command

XSI_NIL = "{http://www.w3.org/2001/XMLSchema-instance}nil"

TABLE_LIST_QUERY = "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_SCHEMA = {schema}"


def parse_xml_result(output: str) -> QueryResult:
    """Parse `mysql --xml` output into rows.

    Raises:
        QueryParseError: If the output is not a mysql resultset document.
    """
    try:
        root = ElementTree.fromstring(output)
    except ElementTree.ParseError as e:
        raise QueryParseError(f"Invalid XML query result: {e}") from e

    if root.tag != "resultset":
        raise QueryParseError(f"Unexpected XML root element '{root.tag}'")

    rows = []
    for row_element in root.iter("row"):
        row: Row = {}
        for field_element in row_element.iter("field"):
            if field_element.get(XSI_NIL) == "true":
                value = None
            else:
                value = field_element.text or ""
            row[field_element.get("name", "")] = value
        rows.append(row)

    return QueryResult(rows=rows)


class MysqlExecutor:
    """Runs SQL through the mysql client on the configured connection."""

    def __init__(self, builder: CommandBuilder, runner: Runner = run_command):
        self.builder = builder
        self.runner = runner

    def _database_args(self, database: Optional[str]) -> list[str]:
        return [database] if database else []

    def exec_statement(self, database: Optional[str], statement: str) -> str:
        """Run a single statement and return the raw tab separated output."""
        args = self.builder.mysql(*self._database_args(database), "-e", statement)
        return self.runner(args).stdout

    def exec_query(self, database: Optional[str], statement: str) -> QueryResult:
        """Run a query and return its rows."""
        statement = re.sub(r"\s*\n\s*", " ", statement).strip()
        args = self.builder.mysql(*self._database_args(database), "--xml", "-e", statement)
        return parse_xml_result(self.runner(args).stdout)

    def get_table_list(self, schema: str) -> list[str]:
        """Names of all tables in a schema."""
        output = self.exec_statement(
            "mysql", TABLE_LIST_QUERY.format(schema=mysql_quote(schema))
        )
        tables = [line for line in output.splitlines() if line]
        logging.debug(f"Schema '{schema}' has {len(tables)} table(s)")
        return tables
