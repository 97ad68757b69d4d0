"""Batch processing example: build a dataset once, match a folder of frames."""

from pathlib import Path
from reco import ImageRecognition, TargetDataset
from reco.dataset.target import build_dataset
from reco.utils.io_handler import JSONWriter, iter_image_data
from reco.utils.logger import setup_logger
from reco.utils.metrics import PerformanceMetrics


def main():
    """Process multiple frames in batch."""
    logger = setup_logger('batch_processor')
    metrics = PerformanceMetrics()

    dataset_path = Path("output/targets.npz")
    if dataset_path.exists():
        dataset = TargetDataset.load(dataset_path)
    else:
        with metrics.measure('build_dataset'):
            dataset = build_dataset(iter_image_data(["test_data/targets"]), units_x=0.3)
        dataset.save(dataset_path)
    logger.info(f"Dataset has {len(dataset)} targets")

    results = {}
    with ImageRecognition() as engine:
        engine.init(dataset)

        for i, data in enumerate(iter_image_data(["test_data/frames"])):
            logger.info(f"Processing frame {i+1}: {data.id}")
            with metrics.measure(data.id):
                result = engine.match(engine.request_builder.build(data.image, data.id))
            results[data.id] = result.to_dict()

    # Save results
    JSONWriter.save_results(results, "output/batch_results.json")
    for name, ms in metrics.get_summary().items():
        logger.info(f"{name}: {ms:.1f} ms")
    logger.info("Batch processing complete!")


if __name__ == "__main__":
    main()
