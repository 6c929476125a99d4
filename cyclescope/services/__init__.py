"""Services: capture, analysis, annotation, storage and orchestration."""
