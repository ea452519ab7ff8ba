from __future__ import annotations


CROP_LISTING_PROMPT_LINES = (
    "Eres un asistente experto en agricultura.",
    'Para la ubicación "{location}", lista entre 5 y 7 cultivos agrícolas',
    "comunes y relevantes en la zona. Para cada uno, proporciona su nombre",
    "común y una descripción breve de sus características en esa región.",
    "IMPORTANTE: responde EXCLUSIVAMENTE con un array JSON válido.",
    'Cada elemento debe ser un objeto con las claves "nombre" (string) y',
    '"descripcion" (string).',
    "Si no hay cultivos aplicables a la ubicación, responde con [].",
    "No agregues texto antes ni después del JSON ni uses formato Markdown.",
    'Ejemplo: [{{"nombre":"CultivoA","descripcion":"Desc A."}}]',
)


def build_crop_listing_prompt(location: str) -> str:
    template = "\n".join(CROP_LISTING_PROMPT_LINES)
    return template.format(location=location.strip())
