#!/usr/bin/env python3
"""
Analyze a video from the command line, without running the API.

Goes through the same normalizer and relay as the HTTP endpoint and
prints the model's text as it streams in.

Usage:
    python scripts/analyze_video.py --file clip.mp4 --focus "analyze footwork"
    python scripts/analyze_video.py --url https://example.com/clip.mp4 --no-stream

Requires:
    - OPENROUTER_API_KEY in the environment or a .env file
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from videolens.config.settings import get_settings
from videolens.core.analysis.errors import StreamInterrupted, VideoAnalysisError
from videolens.core.analysis.models import AnalysisRequest
from videolens.core.analysis.normalizer import UploadedVideo, normalize, normalize_focus
from videolens.core.analysis.stream_parser import StreamingAnalysis, iter_text_deltas
from videolens.infrastructure.openrouter.client import OpenRouterClient, OpenRouterConfig

# Load environment variables
load_dotenv()


def load_file(path: str) -> UploadedVideo:
    data = Path(path).read_bytes()
    content_type, _ = mimetypes.guess_type(path)
    return UploadedVideo(data=data, content_type=content_type, filename=Path(path).name)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()

    try:
        config = OpenRouterConfig(
            api_key=settings.openrouter_api_key,
            model=args.model or settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            app_title=settings.openrouter_app_title,
            referer=settings.openrouter_referer,
            timeout_seconds=settings.request_timeout_seconds,
        )
        upload = load_file(args.file) if args.file else None
        media = normalize(
            file=upload,
            url=args.url,
            max_bytes=settings.max_video_size_bytes,
            default_mime_type=settings.default_video_mime_type,
        )
        request = AnalysisRequest(
            media=media,
            focus=normalize_focus(args.focus),
            stream=not args.no_stream,
        )
        client = OpenRouterClient(config)

        if args.no_stream:
            result = await client.analyze(request)
            print(f"# {result.summary}\n")
            print(result.details)
            return 0

        analysis = StreamingAnalysis()
        async with await client.open_stream(request) as upstream:
            async for delta in iter_text_deltas(upstream):
                analysis.append(delta)
                print(delta, end="", flush=True)
        print()
        print(f"\n[summary] {analysis.summary}", file=sys.stderr)
        return 0

    except VideoAnalysisError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        if e.details:
            print(f"  {e.details}", file=sys.stderr)
        return 1
    except StreamInterrupted as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"ERROR: cannot read {args.file}: {e}", file=sys.stderr)
        return 1


def main():
    parser = argparse.ArgumentParser(description='Analyze a video with OpenRouter')
    parser.add_argument('--file', help='Local video file (wins over --url)')
    parser.add_argument('--url', help='Remote video URL')
    parser.add_argument('--focus', default='', help='Optional focus for the analysis')
    parser.add_argument('--model', default=None, help='Override the configured model')
    parser.add_argument('--no-stream', action='store_true', help='Wait for the full answer')
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
