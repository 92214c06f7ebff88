"""Configuration model for tagging trace data with Kubernetes pod metadata."""