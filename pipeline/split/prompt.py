DETECTION_PROMPT = """Analyze this book scan image.

Is this a SINGLE PAGE or a TWO-PAGE SPREAD (open book with two facing pages)?

TWO-PAGE SPREAD indicators:
- Visible book binding/gutter/spine in center
- Dark line or shadow between two page areas
- Different content on left vs right

SINGLE PAGE indicators:
- No central binding
- Content flows across entire image
- Multiple columns is still ONE page

If TWO PAGES: Return bounding boxes for left (0% to ~51%) and right (~49% to 100%)
If ONE PAGE: Return full image as leftPage, set rightPage to zeros

Coordinates as 0-1000 scale."""


def _box_schema():
    return {
        "type": "object",
        "properties": {
            "xmin": {"type": "number"},
            "xmax": {"type": "number"},
            "ymin": {"type": "number"},
            "ymax": {"type": "number"},
        },
        "required": ["xmin", "xmax", "ymin", "ymax"],
        "additionalProperties": False,
    }


SPLIT_DETECTION_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "split_detection",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "isTwoPageSpread": {"type": "boolean"},
                "confidence": {"type": "string"},
                "reasoning": {"type": "string"},
                "leftPage": _box_schema(),
                "rightPage": _box_schema(),
            },
            "required": ["isTwoPageSpread", "confidence", "reasoning", "leftPage", "rightPage"],
            "additionalProperties": False,
        },
    },
}
