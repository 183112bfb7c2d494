#!/usr/bin/env python3
"""
Artwork Extractor API Server
Product previews from mockup photos plus a raw extraction endpoint.
"""

import os
import logging
from io import BytesIO
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from artwork_extractor.errors import DecodeError, ImageFetchError
from artwork_extractor.models.product import ProductMockup
from artwork_extractor.pipeline.design_extractor import extract_design_bytes
from artwork_extractor.pipeline.preview_builder import PreviewBuilder, load_products
from artwork_extractor.repositories.preview_cache_repository import PreviewCacheRepository
from artwork_extractor.services.extraction_service import ExtractionService

logger = logging.getLogger(__name__)


def _png_response(data: bytes):
    return send_file(BytesIO(data), mimetype='image/png')


def create_app(
    preview_builder: Optional[PreviewBuilder] = None,
    extraction_service: Optional[ExtractionService] = None,
    cache: Optional[PreviewCacheRepository] = None,
    products: Optional[Dict[str, ProductMockup]] = None,
) -> Flask:
    """Build the Flask app; every collaborator can be injected (tests, alternative caches)."""
    app = Flask(__name__)
    CORS(app)  # Enable CORS for storefront previews

    app.config['MAX_CONTENT_LENGTH'] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")) * 1024 * 1024

    extraction_service = extraction_service or ExtractionService()
    preview_builder = preview_builder or PreviewBuilder(extraction_service=extraction_service)
    cache = cache or PreviewCacheRepository(
        capacity=int(os.getenv("PREVIEW_CACHE_SIZE", "256")),
        ttl_s=float(os.getenv("PREVIEW_CACHE_TTL_S", "3600")),
    )
    products = products if products is not None else load_products()

    @app.route('/', methods=['GET'])
    def index():
        return "artwork-extractor (design extraction) is running."

    @app.route('/<product_key>-preview', methods=['GET'])
    def product_preview(product_key: str):
        """Extract the artwork behind ?url= and place it on the product mockup."""
        product = products.get(product_key)
        if product is None:
            return jsonify({'success': False, 'message': f"Unknown product '{product_key}'"}), 404

        artwork_url = request.args.get('url')
        if not artwork_url:
            return jsonify({'success': False, 'message': "Parameter 'url' is missing or invalid."}), 400

        cache_key = product.cache_prefix + artwork_url
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return _png_response(cached)

        try:
            png = preview_builder.build(product, artwork_url)
        except ImageFetchError as e:
            logger.error(f"Fetch error in /{product_key}-preview: {e}")
            return jsonify({'success': False, 'message': 'Image could not be loaded', 'detail': str(e)}), 502
        except DecodeError as e:
            logger.error(f"Decode error in /{product_key}-preview: {e}")
            return jsonify({'success': False, 'message': 'Image could not be decoded', 'detail': str(e)}), 400
        except Exception as e:
            logger.exception(f"Error in /{product_key}-preview: {e}")
            return jsonify({'success': False, 'message': 'Internal error', 'detail': str(e)}), 500

        cache.put(cache_key, png)
        return _png_response(png)

    @app.route('/api/extract', methods=['POST'])
    def extract():
        """Multipart `composite` (+ optional `base`, `tolerance`) → extracted artwork PNG."""
        if 'composite' not in request.files:
            return jsonify({'success': False, 'message': 'No composite image provided'}), 400

        composite_bytes = request.files['composite'].read()
        base_bytes = request.files['base'].read() if 'base' in request.files else None

        tolerance = request.form.get('tolerance')
        try:
            tolerance = float(tolerance) if tolerance is not None else None
        except ValueError:
            return jsonify({'success': False, 'message': f"Invalid tolerance '{tolerance}'"}), 400

        try:
            png = extract_design_bytes(
                composite_bytes,
                base_bytes,
                tolerance=tolerance,
                extraction_service=extraction_service,
            )
        except DecodeError as e:
            logger.error(f"Decode error in /api/extract: {e}")
            return jsonify({'success': False, 'message': 'Image could not be decoded', 'detail': str(e)}), 400
        except ValueError as e:
            return jsonify({'success': False, 'message': str(e)}), 400
        except Exception as e:
            logger.exception(f"Extraction error: {e}")
            return jsonify({'success': False, 'message': 'Internal error', 'detail': str(e)}), 500

        return _png_response(png)

    @app.route('/api/health', methods=['GET'])
    def health_check():
        return jsonify({
            'status': 'healthy',
            'products': sorted(products),
            'cached_previews': len(cache),
        })

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv("PORT", "8080"))
    logger.info(f"Starting Artwork Extractor API server on port {port}")
    app.run(host='0.0.0.0', port=port, debug=False, threaded=True)
