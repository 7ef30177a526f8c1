"""HTTP surface and background job execution for the reindexer."""
