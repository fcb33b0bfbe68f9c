"""Phase assistant: document-grounded business analysis agents."""
