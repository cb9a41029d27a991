"""Expand a topic/brand pair into the fixed set of search prompts."""

QUERY_TEMPLATES: tuple[str, ...] = (
    "Who are the leading experts in {topic}?",
    "What are the best {topic} companies?",
    "Top {topic} consultants and advisors",
    "{topic} thought leaders to follow",
    "Best {topic} resources and tools",
    "{topic} case studies and success stories",
    "How to find a good {topic} consultant",
    "{topic} industry analysis and trends",
    "Who should I hire for {topic} services?",
    "{topic} vendor comparison and reviews",
    "{brand} reviews and reputation",
    "Is {brand} good at {topic}?",
    "{brand} vs competitors in {topic}",
    "{topic} expert recommendations",
    "{topic} consulting firms ranking",
    "{topic} professional services providers",
    "Where to learn about {topic}",
    "{topic} conference speakers and experts",
    "{topic} authors and publications",
    "{topic} innovation leaders",
)


def generate_queries(topic: str, brand_name: str) -> list[str]:
    """Return the 20 prompts for a run, in template order.

    The index of a prompt in this list is its ``query_index`` in stored results.
    """
    return [t.format(topic=topic, brand=brand_name) for t in QUERY_TEMPLATES]
