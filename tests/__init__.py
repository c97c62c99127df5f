"""
clipweave Test Suite

Comprehensive tests for:
- Clip resolution and validation (gaps, strict mode)
- Filter-graph IR, escaping and label allocation
- Video, audio, music, effect, text, subtitle and watermark builders
- Timeline compilation
- FFmpeg process handling, progress and cancellation
- Multi-pass text rendering and the export pipeline

Run tests with:
    pytest tests/ -v

No real FFmpeg is needed; engine processes are mocked.
"""
