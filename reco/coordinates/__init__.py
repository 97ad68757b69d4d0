from reco.coordinates.projection import calculate_y_units, project_region, to_target_match_result
from reco.coordinates.validator import HomographyValidator

__all__ = ['calculate_y_units', 'project_region', 'to_target_match_result', 'HomographyValidator']
