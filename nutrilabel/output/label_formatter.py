"""Formatters for nutrition label output (JSON and Markdown)."""

import json
from typing import Any, Dict, List, Optional, Sequence

from nutrilabel.data_layer.models import resolve_field_name
from nutrilabel.nutrition.audit import Discrepancy, NutritionLabelData, NutritionSource
from nutrilabel.nutrition.calculator import ComponentLine, DishNutrition
from nutrilabel.output.fda_rounding import LABEL_FIELDS, round_profile


def format_field_name(field_name: str) -> str:
    """Display name for a nutrient field (e.g., "total_fat" → "Total Fat").

    Accepts stored aliases such as "kcal" or "saturatedFat". Fields not on
    the label are title-cased.
    """
    name = resolve_field_name(field_name) or field_name
    if name in LABEL_FIELDS:
        return LABEL_FIELDS[name]
    return name.replace("_", " ").title()


def format_quantity(quantity: float) -> str:
    """2.0 → "2", 0.5 → "0.5"."""
    if quantity == int(quantity):
        return str(int(quantity))
    return f"{quantity:.2f}".rstrip("0").rstrip(".")


def format_component_string(component: ComponentLine) -> str:
    """Format a recipe line as a string (e.g., "2 cups flour (250g)").

    Estimated weights are prefixed with "~".
    """
    grams = f"{'~' if component.is_estimate else ''}{component.grams:.0f}g"
    return f"{format_quantity(component.quantity)} {component.unit} {component.name} ({grams})"


def edit_summary(label: NutritionLabelData) -> Optional[str]:
    """Human-readable summary of the latest manual edit, None when unedited."""
    metadata = label.manual_edit_metadata
    if metadata is None:
        return None
    fields = ", ".join(format_field_name(f) for f in metadata.edited_fields) or "no fields"
    date = metadata.timestamp[:10]
    return f"Manually edited {fields} on {date}. Reason: {metadata.reason}"


def format_label_json(
    label: NutritionLabelData,
    name: str = "",
    dish: Optional[DishNutrition] = None,
    discrepancies: Optional[Sequence[Discrepancy]] = None
) -> Dict[str, Any]:
    """Format a label record as JSON (for API usage).

    Args:
        label: Label record; the displayed values are rounded
        name: Dish name
        dish: Computed dish, adds serving info and ingredient lines (optional)
        discrepancies: Output of AuditTrailManager.find_discrepancies (optional)

    Returns:
        Dictionary ready for JSON serialization
    """
    data: Dict[str, Any] = {
        "name": name or (dish.name if dish else ""),
        "source": label.source.value,
        "last_calculated": label.last_calculated,
        "label": [line.to_dict() for line in round_profile(label.values).values()],
        "values": label.values.to_dict(),
        "calculated_values": label.calculated_values.to_dict(),
        "edit_summary": edit_summary(label),
        "discrepancies": [d.to_dict() for d in discrepancies or []],
    }
    if dish is not None:
        data["serving_size_g"] = round(dish.serving_size_g, 1)
        data["servings_per_container"] = dish.servings_per_container
        data["total_grams"] = round(dish.total_grams, 1)
        data["ingredients"] = [format_component_string(c) for c in dish.components]
        data["warnings"] = list(dish.warnings)
    return data


def format_label_json_string(
    label: NutritionLabelData,
    name: str = "",
    dish: Optional[DishNutrition] = None,
    discrepancies: Optional[Sequence[Discrepancy]] = None,
    indent: int = 2
) -> str:
    return json.dumps(format_label_json(label, name, dish, discrepancies), indent=indent)


def format_label_markdown(
    label: NutritionLabelData,
    name: str = "",
    dish: Optional[DishNutrition] = None,
    discrepancies: Optional[Sequence[Discrepancy]] = None
) -> str:
    """Format a label record as Markdown.

    Args:
        label: Label record
        name: Dish name
        dish: Computed dish (optional)
        discrepancies: Fields to flag (optional)

    Returns:
        Formatted Markdown string
    """
    lines: List[str] = []

    title = name or (dish.name if dish else "") or "Nutrition Facts"
    lines.append(f"# {title}\n")

    if label.source is NutritionSource.MANUAL_OVERRIDE:
        lines.append("⚠️ **Manually edited label**\n")
        summary = edit_summary(label)
        if summary:
            lines.append(f"_{summary}_\n")

    if dish is not None:
        lines.append(f"**Servings per container:** {dish.servings_per_container}")
        lines.append(f"**Serving size:** {dish.serving_size_g:.0f}g")
        lines.append("")

    lines.append("## Nutrition Facts")
    lines.append("| Nutrient | Amount | % Daily Value |")
    lines.append("|---|---|---|")
    for line in round_profile(label.values).values():
        lines.append(f"| {line.label} | {line.display} | {line.percent_dv or ''} |")
    lines.append("")

    if discrepancies:
        lines.append("## Discrepancies")
        for d in discrepancies:
            lines.append(
                f"- {format_field_name(d.field)}: displayed {d.displayed:g}, "
                f"calculated {d.calculated:g} ({d.percent_diff:.1f}% off)"
            )
        lines.append("")

    if dish is not None and dish.components:
        lines.append("## Ingredients")
        for component in dish.components:
            lines.append(f"- {format_component_string(component)}")
        lines.append("")

    if dish is not None and dish.warnings:
        lines.append("## Warnings")
        for warning in dish.warnings:
            lines.append(f"- {warning}")
        lines.append("")

    return "\n".join(lines)
