# tests/conftest.py

import pytest
import numpy as np
import rasterio
from rasterio.transform import from_origin
from rasterio.crs import CRS

@pytest.fixture
def mock_raster_factory(tmp_path):
    """
    Fixture: Returns a function writing a GeoTIFF from an array into tmp_path.

    2D arrays become single-band rasters, 3D arrays (bands, rows, cols) multi-band.
    """
    def _make(name, data, res=10.0, crs="EPSG:32619", dtype=None, nodata=None):
        data = np.asarray(data)
        if data.ndim == 2:
            data = data[np.newaxis, :, :]
        count, height, width = data.shape

        path = tmp_path / name
        profile = {
            'driver': 'GTiff',
            'height': height,
            'width': width,
            'count': count,
            'dtype': dtype or data.dtype.name,
            'crs': CRS.from_string(crs),
            'transform': from_origin(500000, 5000000, res, res)
        }
        if nodata is not None:
            profile['nodata'] = nodata
        with rasterio.open(path, 'w', **profile) as dst:
            dst.write(data.astype(profile['dtype']))
        return path

    return _make

@pytest.fixture
def veg_layers():
    """
    Two small categorical layers (5 rows x 4 cols) with repeating combinations.
    """
    veg_type = np.array([
        [1, 1, 2, 2],
        [1, 1, 2, 2],
        [3, 3, 3, 3],
        [1, 2, 3, 1],
        [7, 7, 7, 7],
    ], dtype=np.uint8)

    veg_cov = np.array([
        [10, 10, 10, 20],
        [10, 20, 10, 20],
        [30, 30, 30, 30],
        [10, 10, 30, 10],
        [0, 0, 0, 10],
    ], dtype=np.uint16)

    return veg_type, veg_cov

@pytest.fixture
def veg_files(mock_raster_factory, veg_layers):
    """Writes the two vegetation layers to GeoTIFF files."""
    veg_type, veg_cov = veg_layers
    return (
        mock_raster_factory("veg_type.tif", veg_type),
        mock_raster_factory("veg_cov.tif", veg_cov)
    )
