from .agent import (AgentAttributeExtractor, AttributeExtractor,  # noqa: F401
                    parse_extraction)
