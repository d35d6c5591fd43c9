"""Configuration management for the docscan pipeline."""

from pydantic_settings import BaseSettings


# Page sizes in PDF points (1/72 inch)
PAGE_SIZES = {
    "a4": (595.0, 842.0),
    "letter": (612.0, 792.0),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every heuristic threshold of the pipeline lives here. Several of them
    changed between revisions of the scanner (overlap 0.7 vs 0.5, image
    area 1%/2%/5%), so they are exposed rather than hard-coded.
    """

    # Input
    max_image_dimension: int = 1080

    # Perspective correction
    correct_perspective: bool = True
    quad_min_area_ratio: float = 0.10
    quad_approx_epsilon: float = 0.02

    # Enhancement
    enhance_contrast: bool = True
    clahe_clip_limit: float = 2.0
    clahe_grid_size: int = 8

    # Inverted (light-on-color) regions
    inverted_saturation_threshold: int = 100
    inverted_brightness_threshold: int = 150
    inverted_min_area_ratio: float = 0.002
    inverted_coverage_threshold: float = 0.7

    # Image zones
    color_saturation_threshold: int = 40
    morph_kernel_size: int = 15
    image_min_area_ratio: float = 0.01
    image_max_area_ratio: float = 0.9
    edge_min_area_ratio: float = 0.05
    border_margin: int = 5
    border_small_area_ratio: float = 0.05
    color_std_threshold: float = 20.0
    overlap_threshold: float = 0.7

    # Paragraph grouping
    max_height_ratio: float = 1.5
    line_overlap_threshold: float = 0.3
    same_line_y_ratio: float = 0.3
    max_horizontal_gap: int = 50
    wrap_factor: float = 1.2
    horizontal_overlap_threshold: float = 0.3
    line_bucket_factor: float = 0.8
    reading_line_factor: float = 0.5

    # Grid
    grid_tolerance: float = 5.0
    grid_merge_threshold: float = 0.0

    # Rendering
    page_size: str = "a4"
    font_size: float = 11.0

    # OCR
    tesseract_lang: str = "eng"
    tesseract_psm: int = 3

    # Logging
    log_level: str = "INFO"

    @property
    def page_dimensions(self) -> tuple[float, float]:
        """Target page width and height in points."""
        try:
            return PAGE_SIZES[self.page_size.lower()]
        except KeyError:
            raise ValueError(f"Unknown page size: {self.page_size}") from None

    class Config:
        env_prefix = "docscan_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
