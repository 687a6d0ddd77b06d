import base64
import binascii
import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from safemeds.core.errors import InvalidImageError


@dataclass(frozen=True)
class ScanImage:
    """A captured label photo, kept as the bytes the user sent."""

    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, file_bytes: bytes) -> "ScanImage":
        """Sniff the image format so the model gets the right MIME tag."""
        if not file_bytes:
            raise InvalidImageError("Image is empty")
        try:
            with Image.open(io.BytesIO(file_bytes)) as image:
                mime_type = Image.MIME.get(image.format or "", "image/jpeg")
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidImageError("File is not a readable image") from e
        return cls(data=file_bytes, mime_type=mime_type)

    @classmethod
    def from_base64(cls, encoded: str) -> "ScanImage":
        """Accept plain base64 or a ``data:image/...;base64,`` URL."""
        if encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        try:
            raw = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidImageError("Image is not valid base64") from e
        return cls.from_bytes(raw)

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.b64}"
