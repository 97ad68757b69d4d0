from reco.matching.descriptor_matcher import (
    BFMatcherOptions, DescriptorMatcher, FlannMatcherOptions, MatcherType, matcher_options_from_config
)

__all__ = ['BFMatcherOptions', 'DescriptorMatcher', 'FlannMatcherOptions', 'MatcherType',
           'matcher_options_from_config']
