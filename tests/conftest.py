import pandas as pd
import pytest
from sqlalchemy import create_engine, text

DATE_COLUMNS = ["1-Jun-25", "2-Jun-25", "01-Sep-25", "02-Sep-25", "03-Sep-25"]
# Date column without a matching _reason column
BARE_DATE_COLUMN = "04-Sep-25"

SEED_ROWS = [
    {
        "id": "e1",
        "dse_name": "Ajay Chaubepur",
        "branch": "Kanpur",
        "dse_type": "small",
        "tbe": "TBE-1",
        "be": None,
        "created_at": "2025-01-01",
        "1-Jun-25": "L",
        "1-Jun-25_reason": "sick",
    },
    {
        "id": "e2",
        "dse_name": "W_Mukesh Sahu 2",
        "branch": "Unnao",
        "dse_type": "top",
        "tbe": None,
        "be": "BE-7",
        "created_at": "2025-02-01",
        "1-Jun-25": "L",
        "01-Sep-25": "L",
        "01-Sep-25_reason": "fever",
        "02-Sep-25": "L",
        "02-Sep-25_reason": "Wedding",
    },
    {
        "id": "e3",
        "dse_name": "Rajesh Kumar",
        "branch": "Kanpur",
        "dse_type": "medium",
        "tbe": None,
        "be": None,
        "created_at": "2025-03-01",
        "2-Jun-25": "P",
    },
]


@pytest.fixture
def engine(tmp_path):
    db_engine = create_engine(f"sqlite:///{tmp_path / 'dse.db'}", future=True)

    columns = [
        "id TEXT PRIMARY KEY",
        "dse_name TEXT",
        "branch TEXT",
        "dse_type TEXT",
        "tbe TEXT",
        "be TEXT",
        "created_at TEXT",
    ]
    for key in DATE_COLUMNS:
        columns.append(f'"{key}" TEXT')
        columns.append(f'"{key}_reason" TEXT')
    columns.append(f'"{BARE_DATE_COLUMN}" TEXT')

    with db_engine.begin() as conn:
        conn.execute(text(f"CREATE TABLE dse_attendance ({', '.join(columns)})"))

    yield db_engine
    db_engine.dispose()


@pytest.fixture
def add_rows(engine):
    def _add(rows):
        pd.DataFrame(rows).to_sql("dse_attendance", engine, if_exists="append", index=False)
    return _add


@pytest.fixture
def seeded_engine(engine, add_rows):
    add_rows(SEED_ROWS)
    return engine


@pytest.fixture
def leave_sheet(tmp_path):
    """Write a leave workbook in the layout used by branch offices."""
    def _write(rows, name="leave.xlsx"):
        path = tmp_path / name
        pd.DataFrame(rows).to_excel(path, header=False, index=False)
        return path
    return _write
