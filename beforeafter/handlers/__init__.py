"""HTTP handlers (Lambda-style handler(event, context))."""
