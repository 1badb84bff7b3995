from typing import List, Optional


class FakeRecognizer:
    def __init__(self, page_texts: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.page_texts = page_texts or []
        self.error = error
        self.calls = 0
        self.closed = False

    def recognize_pages(self, content: bytes) -> List[str]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.page_texts)

    def close(self) -> None:
        self.closed = True


class RecognizerFactory:
    def __init__(self, recognizer: FakeRecognizer):
        self.recognizer = recognizer
        self.builds = 0
        self.kwargs = {}

    def __call__(self, **kwargs) -> FakeRecognizer:
        self.builds += 1
        self.kwargs = kwargs
        return self.recognizer
