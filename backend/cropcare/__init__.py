"""CropCare backend package."""
