from pathlib import Path
import pytest
from eqv.catalog import Catalog

CATALOG_FILE = Path(__file__).resolve().parent.parent / "examples" / "catalog.yaml"


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return Catalog.from_file(str(CATALOG_FILE))
