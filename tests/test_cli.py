"""Tests for the command line interface and I/O helpers."""

import json

import cv2
import numpy as np
import pytest
from reco.cli import main, parse_args
from reco.dataset.target import TargetDataset
from reco.types import FeatureMatchingResult, ImageData
from reco.utils.io_handler import JSONWriter, find_images
from reco.utils.logger import parse_log_level
from reco.utils.visualization import draw_keypoints, draw_matches


@pytest.fixture
def reference_dir(tmp_path, image_factory):
    directory = tmp_path / 'refs'
    directory.mkdir()
    for seed in (0, 5):
        cv2.imwrite(str(directory / f'poster{seed}.png'), image_factory(seed))
    (directory / 'notes.txt').write_text('ignored')
    return directory


class TestCli:
    """Test the reco command."""

    def test_subcommand_required(self):
        """Test a command must be given."""
        with pytest.raises(SystemExit):
            parse_args([])

    def test_build_and_match(self, tmp_path, reference_dir):
        """Test building a dataset then matching one of its images."""
        dataset_path = tmp_path / 'dataset.npz'
        assert main(['build-dataset', str(reference_dir), '-o', str(dataset_path), '--units-x', '0.4']) == 0

        dataset = TargetDataset.load(dataset_path)
        assert dataset.ids == ('poster0', 'poster5')
        assert all(t.units_x == 0.4 for t in dataset)

        config_path = tmp_path / 'config.yaml'
        config_path.write_text("preprocessing:\n  blur_kernel: null\n  low_resolution: 320\n")
        json_path = tmp_path / 'out' / 'results.json'
        out_dir = tmp_path / 'annotated'

        code = main(['--config', str(config_path), 'match', str(reference_dir / 'poster0.png'),
                     '--dataset', str(dataset_path), '--json', str(json_path),
                     '--output-dir', str(out_dir)])
        assert code == 0

        results = json.loads(json_path.read_text())
        assert [m['id'] for m in results['poster0']['matches']] == ['poster0']
        assert (out_dir / 'poster0.png').exists()

    def test_build_without_images_fails(self, tmp_path):
        """Test an empty reference folder is reported."""
        empty = tmp_path / 'empty'
        empty.mkdir()
        assert main(['build-dataset', str(empty), '-o', str(tmp_path / 'd.npz')]) == 1


class TestUtils:
    """Test I/O, logging and drawing helpers."""

    def test_find_images_filters_extensions(self, reference_dir):
        """Test only image files are picked from directories."""
        assert [p.name for p in find_images([reference_dir])] == ['poster0.png', 'poster5.png']

    def test_image_data_load_errors(self, tmp_path):
        """Test undecodable sources raise ValueError."""
        with pytest.raises(ValueError):
            ImageData.load(tmp_path / 'missing.png')
        with pytest.raises(ValueError):
            ImageData.load(b'not an image')

    def test_image_data_from_bytes(self, textured_image):
        """Test encoded bytes decode to the same pixels."""
        ok, buffer = cv2.imencode('.png', textured_image)
        data = ImageData.load(buffer.tobytes(), image_id='poster')
        assert data.id == 'poster'
        assert np.array_equal(data.image, textured_image)

    def test_json_writer_accepts_results(self, tmp_path):
        """Test FeatureMatchingResult is written as a dict."""
        path = tmp_path / 'r.json'
        JSONWriter.save_results(FeatureMatchingResult(), str(path))
        assert JSONWriter.load_results(str(path)) == {'has_matches': False, 'matches': []}

    def test_parse_log_level(self):
        """Test level names and numbers."""
        assert parse_log_level('debug') == 10
        assert parse_log_level('20') == 20
        assert parse_log_level(30) == 30
        with pytest.raises(ValueError):
            parse_log_level('chatty')

    def test_drawing_returns_copies(self, textured_image):
        """Test drawing helpers leave the input untouched."""
        gray = cv2.cvtColor(textured_image, cv2.COLOR_BGR2GRAY)
        annotated = draw_keypoints(gray, [cv2.KeyPoint(10.0, 10.0, 5.0)])
        assert annotated.shape == textured_image.shape
        assert draw_matches(textured_image, FeatureMatchingResult()) is not textured_image
