"""HTTP service for project estimates, actual costs and reports."""
