import pandas as pd
import pytest
from numpy.testing import assert_allclose

from cad_bayes.data_prep import DataConfig, clean_filament_frame, load_filament_data
from cad_bayes.errors import InvalidInput
from cad_bayes.model import Observations


def _write_table(path):
    df = pd.DataFrame(
        {
            "Index": [1, 2, 3, 4],
            "Date": ["2021-03-02", "2021-03-01", "2021-03-04", "2021-03-03"],
            "Material": ["Red", "Black", "Green", "Red"],
            "CAD_Weight": ["20.1", "10.4", "n/a", "33.0"],
            "Actual_Weight": [21.0, 10.9, 5.0, 34.2],
        }
    )
    df.to_csv(path, index=False)


def test_load_filament_data(tmp_path):
    csv_path = tmp_path / "filament.csv"
    _write_table(csv_path)
    df, obs = load_filament_data(DataConfig(csv_path=csv_path))
    assert isinstance(obs, Observations)
    assert len(df) == 3
    assert len(obs) == 3
    # sorted by date, non-numeric CAD weight dropped
    assert_allclose(obs.x, [10.4, 20.1, 33.0])
    assert_allclose(obs.y, [10.9, 21.0, 34.2])


def test_resolve_paths(tmp_path):
    cfg = DataConfig(csv_path="data/filament.csv").resolve_paths(project_root=tmp_path)
    assert cfg.csv_path == tmp_path / "data" / "filament.csv"
    assert cfg.x_col == "CAD_Weight"


def test_missing_columns_rejected():
    df = pd.DataFrame({"CAD_Weight": [1.0]})
    with pytest.raises(InvalidInput):
        clean_filament_frame(df, DataConfig(csv_path="unused.csv"))


def test_table_without_usable_rows(tmp_path):
    csv_path = tmp_path / "empty.csv"
    pd.DataFrame({"CAD_Weight": ["x"], "Actual_Weight": [1.0]}).to_csv(csv_path, index=False)
    with pytest.raises(InvalidInput):
        load_filament_data(DataConfig(csv_path=csv_path, date_col=None))
