from .assistant import AIAssistant, parse_autofix_response, strip_code_fences

__all__ = ["AIAssistant", "parse_autofix_response", "strip_code_fences"]
