"""
budget_batch -- the periodic sweep that keeps budget cycles moving.

Each sweep, in order:
    1. reclassify every period against one pinned "now"
    2. handle periods that completed in step 1 (hand over to the upcoming
       budget, or roll the same budget forward)
    3. make sure the active budget has an active or upcoming period
    4. attach orphan expenses to the period they fall in

Architecture:
    budget_batch/ is a top-level package.  Nothing in budget_kernel
    imports from it.  Every step runs in its own transaction; a failing
    step is logged and the remaining steps still run.
"""
