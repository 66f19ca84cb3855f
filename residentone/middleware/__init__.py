"""Flask middleware: structured logging, request timing, rate limits."""
