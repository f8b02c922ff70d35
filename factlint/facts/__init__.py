"""
Canonical facts and the annotation write path.

Modules:
    store - Fact table loading with the derived-values overlay
    patterns - Search patterns for fact display values
    scanner - Matching and three-stage deduplication
    rewriter - Annotation tags and import management
    wrap - Per-file fact-wrap runs
"""
