"""Tests for splitting documents into prose and score blocks."""

from __future__ import annotations

from scoreflow.utils.markdown_blocks import Segment, split_document

DOCUMENT = """# Chorales

Some prose.

```verovio
scores/bach.mei
scale: 40
```

```python
print("not a score")
```

~~~verovio
https://example.org/b.mei
~~~
The end.
"""


def test_split_document():
    segments = split_document(DOCUMENT)
    assert [s.kind for s in segments] == ["text", "score", "text", "score", "text"]
    assert segments[0] == Segment("text", "# Chorales\n\nSome prose.", 1)
    assert segments[1] == Segment("score", "scores/bach.mei\nscale: 40", 6)
    assert 'print("not a score")' in segments[2].content
    assert segments[3].content == "https://example.org/b.mei"
    assert segments[4].content == "The end."


def test_unterminated_fence_runs_to_end():
    segments = split_document("intro\n```verovio\na.mei\nscale: 10")
    assert segments[-1] == Segment("score", "a.mei\nscale: 10", 3)


def test_longer_closing_fence():
    segments = split_document("````verovio\na.mei\n```\nscale: 5\n````")
    assert segments == [Segment("score", "a.mei\n```\nscale: 5", 2)]


def test_no_blocks():
    assert split_document("just text") == [Segment("text", "just text", 1)]


def test_other_language():
    segments = split_document("```abc\nX:1\n```", language="abc")
    assert segments == [Segment("score", "X:1", 2)]
