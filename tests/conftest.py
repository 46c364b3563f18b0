import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import data as data_module  # noqa: E402


SAMPLE_CSV = """YEAR,MONTH,SUPPLIER,ITEM CODE,ITEM DESCRIPTION,ITEM TYPE,RETAIL SALES,RETAIL TRANSFERS,WAREHOUSE SALES
2020,1,REPUBLIC NATIONAL,100009,BOOTLEG RED - 750ML,WINE,0,0,2
2020,1,PWSWN INC,100024,MOMENT DE PLAISIR - 750ML,WINE,0.82,0,4
2020,1,RELIABLE CHURCHILL,1001,S SMITH ORGANIC PEAR CIDER,BEER,10,1,0
2019,12,RELIABLE CHURCHILL,1001,S SMITH ORGANIC PEAR CIDER,BEER,5,2,3
2020,2,STE MICHELLE,100145,SCHLINK HAUS KABINETT - 750ML,WINE,abc,1.5,6
2020,0,UNKNOWN,999,MISSING MONTH,LIQUOR,100,100,100
"""


@pytest.fixture()
def sample_csv_text() -> str:
    return SAMPLE_CSV


@pytest.fixture()
def sample_csv_path(tmp_path: Path) -> Path:
    path = tmp_path / "Warehouse_and_Retail_Sales.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path


@pytest.fixture()
def sales_source(sample_csv_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(data_module.SOURCE_ENV, str(sample_csv_path))
    data_module.clear_cache()
    yield sample_csv_path
    data_module.clear_cache()
