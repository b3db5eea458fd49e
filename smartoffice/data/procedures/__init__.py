"""Server-side scripts registered on each container."""

from importlib import resources

BULK_IMPORT_SCRIPT = "bulk_import.js"


def load_procedure(script: str = BULK_IMPORT_SCRIPT) -> str:
    """Read a stored procedure body shipped with the package."""
    return resources.files(__name__).joinpath(script).read_text(encoding="utf-8")
