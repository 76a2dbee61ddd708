"""
Building blocks for summary table construction.

Contains:
- classifier: Variable kind detection (continuous / categorical / dichotomous)
- statistics: Per-column statistic bundles, optionally computed on a thread pool
- templating: Statistic template parsing, validation & interpolation
- comparison: Between-group hypothesis tests with exact-test fallback
- table_model: Table body assembly & column layout
- render_pipeline: Named, ordered render calls & their execution
- html_backend: HTML / DataFrame rendering target
"""
