"""Basic usage example for reco."""

import cv2
from reco import ImageRecognition, ImageData
from reco.utils.visualization import draw_matches
from reco.utils.io_handler import save_image


def main():
    """Register one reference image and find it in a photo."""
    # Load images
    target_path = "test_data/targets/poster.jpg"
    query_path = "test_data/frames/sample_frame.jpg"
    target = cv2.imread(target_path)
    query = cv2.imread(query_path)

    if target is None or query is None:
        print(f"Error: Could not load {target_path} or {query_path}")
        return

    with ImageRecognition() as engine:
        # Build the index
        print("Extracting target features...")
        engine.init([ImageData('poster', target)])

        # Match
        print("Matching...")
        result = engine.match_image(query)

    for match in result.matches:
        print(f"Found {match.id} at ({match.center_x:.1f}, {match.center_y:.1f}), "
              f"angle {match.angle:.1f}")
    if not result.has_matches:
        print("No targets found")

    # Save output
    output_path = "output/basic_recognition.jpg"
    save_image(draw_matches(query, result), output_path)
    print(f"Results saved to {output_path}")


if __name__ == "__main__":
    main()
