from prometheus_client import Counter


# === Global Metrics ===

api_exception_counter = Counter(
    "api_exception_count", "Total API exceptions by type",
    ["type"]
)

prompt_generation_counter = Counter(
    "prompt_generation_total", "Interview prompt generation runs by outcome",
    ["outcome"]  # ready, failed
)

feedback_generation_counter = Counter(
    "feedback_generation_total", "Feedback synthesis runs by source",
    ["source"]  # cache, llm, mock
)

tavus_callback_counter = Counter(
    "tavus_callback_total", "Video provider callbacks received",
    ["event_type"]
)

stripe_webhook_counter = Counter(
    "stripe_webhook_total", "Stripe webhook events received",
    ["event_type"]
)
