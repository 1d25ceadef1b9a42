"""Create a site-sign photo for local OCR testing."""

from PIL import Image, ImageDraw

# Yellow sign on a grey background
width, height = 800, 600
image = Image.new("RGB", (width, height), color=(120, 120, 120))
draw = ImageDraw.Draw(image)
draw.rectangle((100, 120, 700, 420), fill=(250, 210, 40), outline="black", width=4)

sign_lines = [
    "SP-280 KM 94+050 SENTIDO LESTE",
    "BSO 04 - CONTRATO 123/2024",
    "24/11/2025 14:32",
]

y_position = 170
for line in sign_lines:
    draw.text((140, y_position), line, fill="black")
    y_position += 70

output_path = "site_sign.jpg"
image.save(output_path, format="JPEG")
print(f"Created test image: {output_path}")
print(f"Classify it with: OCR_ENGINE=tesseract obra-photo classify --heuristic-only {output_path}")
