"""Command line interface: build datasets, match images, serve remote requests."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from reco.config import load_config
from reco.core import ImageRecognition
from reco.dataset.serializer import DatasetSerializer
from reco.dataset.target import build_dataset
from reco.detection.feature_extractor import FeatureExtractor
from reco.detection.options import options_from_config
from reco.preprocessing.enhancement import ImageRequestBuilder
from reco.remote.server import RecognitionServer
from reco.utils.io_handler import JSONWriter, iter_image_data, save_image
from reco.utils.logger import create_session_log_file, parse_log_level, setup_logger
from reco.utils.visualization import draw_matches


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog='reco', description='Image target recognition')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML file merged over the default configuration')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Logging level (DEBUG, INFO, ...)')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Also write a timestamped session log into this directory')

    subparsers = parser.add_subparsers(dest='command', required=True)

    build = subparsers.add_parser('build-dataset', help='Extract features from reference images')
    build.add_argument('images', nargs='+', help='Image files or directories of images')
    build.add_argument('-o', '--output', required=True, help='Dataset file to write')
    build.add_argument('--units-x', type=float, default=None,
                       help='Physical width of every target (default from config)')

    match = subparsers.add_parser('match', help='Recognize targets in images')
    match.add_argument('images', nargs='+', help='Query image files or directories')
    match.add_argument('--dataset', required=True, help='Dataset file built with build-dataset')
    match.add_argument('--output-dir', type=str, default=None,
                       help='Write annotated images here')
    match.add_argument('--json', type=str, default=None, help='Write all results to this JSON file')

    serve = subparsers.add_parser('serve', help='Answer remote match requests over TCP')
    serve.add_argument('--dataset', required=True, help='Dataset file built with build-dataset')
    serve.add_argument('--host', type=str, default='127.0.0.1')
    serve.add_argument('--port', type=int, default=5000)

    return parser.parse_args(argv)


def build_command(args, config, logger) -> int:
    dataset_config = config['dataset']
    extractor = FeatureExtractor(options_from_config(config['extractor']))
    builder = ImageRequestBuilder().with_grayscale()
    units_x = args.units_x if args.units_x is not None else dataset_config['units_x']

    dataset = build_dataset(iter_image_data(args.images), extractor, builder, units_x,
                            dataset_config['target_resolution'])
    if len(dataset) == 0:
        logger.error("No reference images found")
        return 1

    for target in dataset:
        logger.info(f"{target.id}: {target.keypoint_count} keypoints")

    DatasetSerializer.serialize(args.output, dataset)
    logger.info(f"Wrote {len(dataset)} targets to {args.output}")
    return 0


def match_command(args, config, logger) -> int:
    all_results = {}

    with ImageRecognition(config) as engine:
        engine.init_from_file(args.dataset)

        for data in iter_image_data(args.images):
            frame = data.image
            result = engine.match_image(frame, data.id)
            all_results[data.id] = result.to_dict()

            if result.has_matches:
                for m in result.matches:
                    logger.info(f"{data.id}: {m.id} at ({m.center_x:.1f}, {m.center_y:.1f}), "
                                f"angle {m.angle:.1f}")
            else:
                logger.info(f"{data.id}: no targets")

            if args.output_dir:
                save_image(draw_matches(frame, result), str(Path(args.output_dir) / f"{data.id}.png"))

    if args.json:
        JSONWriter.save_results(all_results, args.json)
        logger.info(f"Results saved to {args.json}")
    return 0


def serve_command(args, config, logger) -> int:
    with ImageRecognition(config) as engine:
        engine.init_from_file(args.dataset)
        server = RecognitionServer(engine, config['remote']['chunk_size'])
        try:
            server.serve_forever(args.host, args.port)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            server.shutdown(timeout=5.0)
    return 0


COMMANDS = {
    'build-dataset': build_command,
    'match': match_command,
    'serve': serve_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    log_file = create_session_log_file(args.log_dir) if args.log_dir else None
    logger = setup_logger('reco', parse_log_level(args.log_level), log_file)

    config = load_config(args.config)
    return COMMANDS[args.command](args, config, logger)


if __name__ == '__main__':
    sys.exit(main())
