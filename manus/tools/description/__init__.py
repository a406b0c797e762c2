from manus.tools.description.buildin import TERMINATE_DESCRIPTION

__all__ = ["TERMINATE_DESCRIPTION"]
