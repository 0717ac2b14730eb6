"""Services: detection pipeline, validation, tags and notifications."""
