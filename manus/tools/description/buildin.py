"""Descriptions for built-in tools."""

# ============== Control Tools ==============

TERMINATE_DESCRIPTION: str = """
Terminate the interaction when the request is met OR if the assistant cannot proceed further with the task.
When you have finished all the tasks, call this tool to end the work.

## When to Use

- The user's request has been fully answered
- Every planned step has been carried out and verified
- The task cannot be completed and further attempts would only repeat failures

## When NOT to Use

- Don't call it while tool results are still pending review
- Don't call it just to report progress; keep working instead

## Usage Notes

- Pass status "success" when the request was met, "failure" otherwise
- Nothing runs after this tool; put the final answer in your message first
""".strip()
