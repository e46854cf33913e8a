"""
Clusterers Module - Agglomerative Clustering Strategies

Strategies build a dendrogram over d = 1 - similarity; the cluster reducer
cuts it into flat clusters.
"""

from .base_clusterer import BaseClusterer, Dendrogram
from .linkage_rules import (
    LinkageRule, CompleteLinkage, SingleLinkage, AverageLinkage, LINKAGE_RULES, get_linkage_rule
)
from .agglomerative_clusterer import AgglomerativeClusterer
from .scipy_clusterer import ScipyLinkageClusterer

__all__ = [
    'BaseClusterer',
    'Dendrogram',
    'LinkageRule',
    'CompleteLinkage',
    'SingleLinkage',
    'AverageLinkage',
    'LINKAGE_RULES',
    'get_linkage_rule',
    'AgglomerativeClusterer',
    'ScipyLinkageClusterer'
]
