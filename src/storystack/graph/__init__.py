"""Graph package - structural analysis of a story's cards and choices.

Every function here takes an explicit snapshot (cards, choices, start
card) and returns fresh results; nothing is cached between calls.
"""

from storystack.graph.analysis import (
    DEFAULT_PLACEHOLDER_TITLE,
    CompletenessPolicy,
    GraphAnalysis,
    analyze,
    card_has_content,
    card_has_title,
    completeness_policy,
    is_card_complete,
)
from storystack.graph.ancestry import AncestryPath, ParentLink, ancestry_path, build_parent_index
from storystack.graph.diff import (
    EdgeDiff,
    NodeDiff,
    diff_edges,
    diff_nodes,
    edge_hash,
    node_hash,
    reconcile_edges,
    reconcile_nodes,
)
from storystack.graph.navigation import (
    KEY_DIRECTIONS,
    Direction,
    NavigationMap,
    NavigationResult,
    build_navigation_map,
    node_aria_label,
    node_status_label,
)
from storystack.graph.orphans import (
    ParentSuggestion,
    content_similarity,
    suggest_parents,
    title_similarity,
)
from storystack.graph.progress import (
    BranchDepth,
    BranchOption,
    BranchPreview,
    Milestone,
    PathProgress,
    PathStep,
    branch_depth,
    branch_preview,
    max_reachable_depth,
    path_progress,
)
from storystack.graph.snapshot import (
    GraphDiff,
    GraphSnapshot,
    compute_graph_diff,
    create_snapshot,
    nodes_needing_layout,
    subtree_nodes,
)
from storystack.graph.validation import (
    FixAction,
    ValidationFix,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
    filter_by_category,
    filter_by_severity,
    issues_for_card,
    validate_story,
)

__all__ = [
    "DEFAULT_PLACEHOLDER_TITLE",
    "KEY_DIRECTIONS",
    "AncestryPath",
    "BranchDepth",
    "BranchOption",
    "BranchPreview",
    "CompletenessPolicy",
    "Direction",
    "EdgeDiff",
    "FixAction",
    "GraphAnalysis",
    "GraphDiff",
    "GraphSnapshot",
    "Milestone",
    "NavigationMap",
    "NavigationResult",
    "NodeDiff",
    "ParentLink",
    "ParentSuggestion",
    "PathProgress",
    "PathStep",
    "ValidationFix",
    "ValidationIssue",
    "ValidationResult",
    "ValidationStats",
    "analyze",
    "ancestry_path",
    "branch_depth",
    "branch_preview",
    "build_navigation_map",
    "build_parent_index",
    "card_has_content",
    "card_has_title",
    "completeness_policy",
    "compute_graph_diff",
    "content_similarity",
    "create_snapshot",
    "diff_edges",
    "diff_nodes",
    "edge_hash",
    "filter_by_category",
    "filter_by_severity",
    "is_card_complete",
    "issues_for_card",
    "max_reachable_depth",
    "node_aria_label",
    "node_hash",
    "node_status_label",
    "nodes_needing_layout",
    "path_progress",
    "reconcile_edges",
    "reconcile_nodes",
    "subtree_nodes",
    "suggest_parents",
    "title_similarity",
    "validate_story",
]
