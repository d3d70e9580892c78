"""Distils noisy install/build output into a short, actionable excerpt."""

# Case-sensitive: npm install chatter uses lowercase "error:" lines that
# would otherwise anchor the excerpt ahead of the real compiler error.
FAILURE_MARKERS = (
    "Failed to compile",
    "Type error:",
    "Module not found",
    "SyntaxError",
    "Error:",
)
TAIL_LINES = 40
MAX_EXCERPT_CHARS = 2000


def extract_build_error(raw_output: str) -> str:
    """Return the part of ``raw_output`` worth feeding back to the generator.

    Scans top to bottom for the first line carrying a known compiler or
    bundler failure marker and keeps everything from that line on. Without a
    marker, falls back to the last TAIL_LINES lines. The result never exceeds
    MAX_EXCERPT_CHARS characters.

    Args:
        raw_output: Combined output of the failed build commands.

    Returns:
        Bounded error excerpt (possibly empty).
    """
    lines = raw_output.splitlines()
    start = next(
        (
            idx
            for idx, line in enumerate(lines)
            if any(marker in line for marker in FAILURE_MARKERS)
        ),
        None,
    )
    relevant = lines[start:] if start is not None else lines[-TAIL_LINES:]
    return "\n".join(relevant)[:MAX_EXCERPT_CHARS]
