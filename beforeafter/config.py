import os
from dotenv import load_dotenv

load_dotenv()

# API Keys and Config - loaded from .env
FAL_API_KEY = os.getenv("FAL_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Storage buckets
DRAFT_IMAGES_BUCKET = os.getenv("DRAFT_IMAGES_BUCKET", "draft-images")
TEMP_UPLOADS_BUCKET = os.getenv("TEMP_UPLOADS_BUCKET", "temp-uploads")

# Local overlay persistence (overlays never leave the device)
OVERLAYS_DIR = os.getenv("OVERLAYS_DIR", ".overlays")

# Enhancement job lifecycle
MAX_PROCESSING_MS = int(os.getenv("MAX_PROCESSING_MS", "120000"))
TRANSIENT_STATUS_CODES = frozenset({400, 405, 408, 429, 500, 502, 503, 504})

# Credits
DEFAULT_MONTHLY_ALLOCATION = int(os.getenv("DEFAULT_MONTHLY_ALLOCATION", "10"))

# Legacy rows did not record image dimensions
LEGACY_IMAGE_SIZE = (1080, 1080)

# Remote model per feature (fal.ai queue)
FAL_MODELS: dict[str, dict] = {
    "auto_quality": {
        "model": "fal-ai/creative-upscaler",
        "default_params": {
            "scale": 2,
            "creativity": 0,
            "detail": 5,
            "shape_preservation": 3,
            "model_type": "SDXL",
            "prompt": (
                "enhance image resolution and sharpness only, preserve original colors exactly, "
                "maintain color accuracy, professional photography quality, crisp focus, "
                "reduce pixelation, reduce blur, high definition clarity"
            ),
            "negative_prompt": (
                "blurry, low resolution, pixelated, compression artifacts, noisy, color shift, "
                "altered colors, oversaturated, desaturated, overprocessed, beauty filter, "
                "skin smoothing, airbrushed, retouched, stylized"
            ),
            "guidance_scale": 15,
            "num_inference_steps": 30,
            "enable_safety_checker": True,
        },
        "estimated_cost_usd": 0.015,
        "estimated_time_seconds": 30,
    },
    "background_remove": {
        "model": "fal-ai/birefnet/v2",
        "default_params": {
            "model": "General Use (Heavy)",
            "operating_resolution": "1024x1024",
            "output_format": "png",
            "refine_foreground": True,
        },
        "estimated_cost_usd": 0.005,
        "estimated_time_seconds": 15,
    },
    "background_replace": {
        "model": "fal-ai/image-editing/background-change",
        "default_params": {
            "prompt": "professional studio background, clean, neutral, soft lighting",
            "negative_prompt": "distracting elements, patterns, text, low quality, blurry",
            "output_format": "png",
            "num_inference_steps": 30,
            "guidance_scale": 3.5,
        },
        "estimated_cost_usd": 0.04,
        "estimated_time_seconds": 15,
    },
}

# Credits charged per completed job
FEATURE_COSTS: dict[str, int] = {
    "auto_quality": 1,
    "background_remove": 1,
    "background_replace": 1,
}
