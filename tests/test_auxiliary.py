import numpy as np
import pytest
import pillow_heif
from PIL import Image

from depthview.core.contracts import AuxiliaryPixelFormat
from depthview.depth.auxiliary import (
    AuxiliaryFrame,
    AuxiliaryMetadata,
    UnknownPixelFormatError,
    find_xmp_packet,
    parse_pixel_format,
    parse_xmp_metadata,
    read_auxiliary_frames,
    select_depth_frame,
)

from conftest import apple_depth_xmp, build_mpo, make_color, make_disparity, write_jpeg, write_mpo


APPLE_XMP = b"""<x:xmpmeta xmlns:x="adobe:ns:meta/">
 <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <rdf:Description rdf:about=""
    xmlns:depthData="http://ns.apple.com/depthData/1.0/"
    depthData:PixelFormat="1751411059"
    depthData:Quality="high"/>
  <rdf:Description rdf:about=""
    xmlns:apdi="http://ns.apple.com/pixeldatainfo/1.0/">
   <apdi:FloatMinValue>0.25</apdi:FloatMinValue>
   <apdi:FloatMaxValue>2.5</apdi:FloatMaxValue>
  </rdf:Description>
 </rdf:RDF>
</x:xmpmeta>"""


def test_parse_apple_depth_xmp():
    meta = parse_xmp_metadata(APPLE_XMP)
    assert meta.is_depth_data
    assert meta.pixel_format == AuxiliaryPixelFormat.DISPARITY_FLOAT16
    assert meta.float_min == pytest.approx(0.25)
    assert meta.float_max == pytest.approx(2.5)


def test_parse_xmp_defaults_without_fields():
    meta = parse_xmp_metadata('<x:xmpmeta xmlns:x="adobe:ns:meta/"></x:xmpmeta>')
    assert meta == AuxiliaryMetadata()


def test_parse_xmp_ignores_malformed_range():
    meta = parse_xmp_metadata(
        b'<x:xmpmeta xmlns:x="adobe:ns:meta/" xmlns:a="urn:example"'
        b' a:FloatMinValue="oops" a:FloatMaxValue="4"/>'
    )
    assert meta.float_min == 0.0
    assert meta.float_max == 4.0


def test_parse_single_quoted_xmp():
    meta = parse_xmp_metadata(apple_depth_xmp("fdep", 0.5, 4.0))
    assert meta.is_depth_data
    assert meta.pixel_format == AuxiliaryPixelFormat.DEPTH_FLOAT32
    assert meta.float_min == pytest.approx(0.5)
    assert meta.float_max == pytest.approx(4.0)


def test_parse_xmp_not_well_formed():
    meta = parse_xmp_metadata(b"<x:xmpmeta depthData:PixelFormat='fdep'>")
    assert meta == AuxiliaryMetadata()


def test_parse_xmp_rejects_unknown_format():
    with pytest.raises(UnknownPixelFormatError):
        parse_xmp_metadata(
            b'<x:xmpmeta xmlns:x="adobe:ns:meta/" xmlns:d="urn:example"'
            b' d:PixelFormat="BGRA"></x:xmpmeta>'
        )


@pytest.mark.parametrize(
    "value, expected",
    [
        ("fdis", AuxiliaryPixelFormat.DISPARITY_FLOAT32),
        ("hdep", AuxiliaryPixelFormat.DEPTH_FLOAT16),
        (str(AuxiliaryPixelFormat.DEPTH_FLOAT32.code), AuxiliaryPixelFormat.DEPTH_FLOAT32),
    ],
)
def test_parse_pixel_format(value, expected):
    assert parse_pixel_format(value) == expected


def test_parse_pixel_format_rejects_oversized_integer():
    with pytest.raises(UnknownPixelFormatError):
        parse_pixel_format(str(2 ** 40))


def test_find_xmp_packet_in_byte_stream():
    data = b"\xff\xd8junk" + APPLE_XMP + b"more\xff\xd9"
    assert find_xmp_packet(data) == APPLE_XMP
    assert find_xmp_packet(b"\xff\xd8\xff\xd9") is None


def test_read_auxiliary_frames_from_mpo(tmp_path):
    path = write_mpo(tmp_path / "test00.jpg", make_color(), make_disparity())
    frames = read_auxiliary_frames(path)

    assert len(frames) == 1
    frame = frames[0]
    assert frame.index == 1
    assert frame.samples.shape == (12, 16)
    assert frame.samples.dtype == np.float32
    assert 0.0 <= frame.samples.min() and frame.samples.max() <= 1.0
    # Ramp survives JPEG compression
    assert frame.samples[:, -1].mean() > frame.samples[:, 0].mean()


def test_read_auxiliary_frames_plain_jpeg(tmp_path):
    path = write_jpeg(tmp_path / "plain.jpg", make_color())
    assert read_auxiliary_frames(path) == []


def test_read_auxiliary_frames_not_an_image(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")
    assert read_auxiliary_frames(path) == []


def test_select_depth_frame_prefers_depth_namespace():
    samples = np.zeros((2, 2), dtype=np.float32)
    matte = AuxiliaryFrame(index=1, samples=samples, metadata=AuxiliaryMetadata())
    depth = AuxiliaryFrame(
        index=2, samples=samples, metadata=AuxiliaryMetadata(is_depth_data=True)
    )
    assert select_depth_frame([matte, depth]) is depth
    assert select_depth_frame([matte]) is matte
    assert select_depth_frame([]) is None


def test_read_frames_with_embedded_xmp(tmp_path):
    path = build_mpo(
        tmp_path / "test00.jpg",
        make_color(),
        [(make_disparity(), apple_depth_xmp("hdep", 0.5, 4.0))],
    )
    frames = read_auxiliary_frames(path)

    assert len(frames) == 1
    meta = frames[0].metadata
    assert meta.is_depth_data
    assert meta.pixel_format == AuxiliaryPixelFormat.DEPTH_FLOAT16
    assert meta.float_max == pytest.approx(4.0)
    assert frames[0].samples.shape == (12, 16)


def test_depth_frame_selected_from_file(tmp_path):
    matte = np.full((12, 16), 200, dtype=np.uint8)
    path = build_mpo(
        tmp_path / "test00.jpg",
        make_color(),
        [(matte, None), (make_disparity(), apple_depth_xmp())],
    )
    frames = read_auxiliary_frames(path)

    assert [frame.index for frame in frames] == [1, 2]
    assert not frames[0].metadata.is_depth_data
    assert select_depth_frame(frames).index == 2


# ------------------------------------------------------------
# HEIC
# ------------------------------------------------------------

class FakeDepthImage:
    def __init__(self, samples, metadata):
        self._samples = samples
        self.info = {"metadata": metadata}

    def to_pillow(self):
        return Image.fromarray(self._samples, "L")


class FakeHeifFile:
    def __init__(self, depth_images):
        self.info = {"depth_images": depth_images}


@pytest.fixture
def fake_heif(monkeypatch):
    """Route pillow_heif to an in-memory container with the given depth images."""
    def install(depth_images):
        monkeypatch.setattr(pillow_heif, "is_supported", lambda fp: True)
        monkeypatch.setattr(
            pillow_heif, "open_heif", lambda fp, **kwargs: FakeHeifFile(depth_images)
        )
    return install


def test_read_heif_depth_images(tmp_path, fake_heif):
    fake_heif([FakeDepthImage(make_disparity(), {"representation_type": 2, "z_near": 0.5, "z_far": 4.0})])
    path = tmp_path / "test00.heic"
    path.write_bytes(b"heic")

    frames = read_auxiliary_frames(path)

    assert len(frames) == 1
    meta = frames[0].metadata
    assert meta.is_depth_data
    assert meta.pixel_format == AuxiliaryPixelFormat.DEPTH_FLOAT32
    assert (meta.float_min, meta.float_max) == (0.5, 4.0)
    assert frames[0].samples[0, -1] == pytest.approx(1.0)


def test_read_heif_disparity_range(tmp_path, fake_heif):
    fake_heif([FakeDepthImage(make_disparity(), {"representation_type": 1, "d_min": 0.1, "d_max": 2.0})])
    path = tmp_path / "test00.HEIC"
    path.write_bytes(b"heic")

    meta = read_auxiliary_frames(path)[0].metadata
    assert meta.pixel_format == AuxiliaryPixelFormat.DISPARITY_FLOAT32
    assert (meta.float_min, meta.float_max) == (0.1, 2.0)


def test_read_heif_without_depth_images(tmp_path, fake_heif):
    fake_heif([])
    path = tmp_path / "test00.heic"
    path.write_bytes(b"heic")
    assert read_auxiliary_frames(path) == []


def test_read_heif_not_a_heif_file(tmp_path):
    path = tmp_path / "broken.heic"
    path.write_bytes(b"not an image at all")
    assert read_auxiliary_frames(path) == []
