"""
Resource loader for SQL scripts packaged with pipeline_core.
"""

from importlib.resources import files
from typing import List

SQL_PACKAGE = "pipeline_core.database"


def load_sql_script(script_name: str) -> str:
    """
    Load a SQL script from the packaged sql directory.

    Args:
        script_name: Name of the SQL file (e.g., 'init.sql')

    Returns:
        The content of the SQL file

    Raises:
        FileNotFoundError: If the script is not found
    """
    sql_file = files(SQL_PACKAGE) / "sql" / script_name
    if not sql_file.is_file():
        raise FileNotFoundError(f"SQL script '{script_name}' not found in package resources")
    return sql_file.read_text(encoding="utf-8")


def list_available_scripts() -> List[str]:
    """List all available SQL scripts in the package."""
    sql_dir = files(SQL_PACKAGE) / "sql"
    return sorted(f.name for f in sql_dir.iterdir() if f.name.endswith(".sql"))
