from exec_shells import OutputBuffer


def test_append_concatenates_chunks():
    buf = OutputBuffer()
    buf.append("ab")
    buf.append("cd")
    assert buf.text() == "abcd"
    assert buf.size == 4


def test_empty_buffer():
    buf = OutputBuffer()
    assert buf.text() is None
    assert buf.size == 0
    assert not buf


def test_append_bytes_and_partial_utf8():
    buf = OutputBuffer()
    encoded = "héllo\n".encode("utf-8")
    # a chunk boundary can split a multi-byte character
    buf.append(encoded[:2])
    buf.append(encoded[2:])
    assert buf.text() == "héllo\n"
    assert buf.size == len(encoded)


def test_no_delimiter_between_chunks():
    buf = OutputBuffer()
    for chunk in ("li", "ne1\nli", "ne2\n"):
        buf.append(chunk)
    assert buf.text() == "line1\nline2\n"


def test_append_out_of_memory_is_noop():
    class _Exhausted(bytearray):
        def extend(self, data):
            raise MemoryError

    buf = OutputBuffer()
    buf.append("kept")
    buf._data = _Exhausted(buf._data)
    buf.append("lost")
    assert buf.text() == "kept"
    assert buf.size == 4


def test_clear():
    buf = OutputBuffer()
    buf.append("x")
    buf.clear()
    assert buf.text() is None
