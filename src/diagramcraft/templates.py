from typing import Dict, List

DEFAULT_PROJECT_NAME = "Untitled"

DEFAULT_DIAGRAM = (
    "flowchart TB\n"
    "A[Sensing Layer] --> B[Edge Layer]\n"
    "B --> C[Communication Layer]\n"
    "C --> D[Cloud Layer]\n"
    "D --> E[Application Layer]\n"
    "E --> B"
)

STARTER_TEMPLATES: List[Dict[str, str]] = [
    {
        "id": "iot_layers",
        "name": "IoT Layers",
        "description": "Layered IoT architecture flowchart.",
        "code": DEFAULT_DIAGRAM,
    },
    {
        "id": "api_sequence",
        "name": "API Request",
        "description": "Client to API to DB sequence.",
        "code": (
            "sequenceDiagram\n"
            "    participant U as User\n"
            "    participant C as Client\n"
            "    participant A as API\n"
            "    participant D as DB\n"
            "    U->>C: Submit form\n"
            "    C->>A: POST /orders\n"
            "    A->>D: Insert order\n"
            "    D-->>A: OK\n"
            "    A-->>C: 201 Created\n"
            "    C-->>U: Confirmation\n"
        ),
    },
    {
        "id": "order_state",
        "name": "Order State",
        "description": "Order lifecycle state machine.",
        "code": (
            "stateDiagram-v2\n"
            "    [*] --> Created\n"
            "    Created --> Paid\n"
            "    Paid --> Shipped\n"
            "    Shipped --> Delivered\n"
            "    Paid --> Cancelled\n"
            "    Created --> Cancelled\n"
        ),
    },
    {
        "id": "ec_er",
        "name": "EC Minimal ER",
        "description": "Basic user-order-item schema.",
        "code": (
            "erDiagram\n"
            "    USER ||--o{ ORDER : places\n"
            "    ORDER ||--|{ ORDER_ITEM : contains\n"
            "    PRODUCT ||--o{ ORDER_ITEM : referenced_by\n"
        ),
    },
    {
        "id": "release_gantt",
        "name": "Release Plan",
        "description": "Simple weekly release timeline.",
        "code": (
            "gantt\n"
            "    title Release Plan\n"
            "    dateFormat  YYYY-MM-DD\n"
            "    section Planning\n"
            "    Scope Freeze     :a1, 2026-02-10, 3d\n"
            "    section Build\n"
            "    Implementation   :a2, after a1, 5d\n"
            "    section Validate\n"
            "    QA              :a3, after a2, 3d\n"
        ),
    },
    {
        "id": "traffic_pie",
        "name": "Traffic Sources",
        "description": "Share of visits per channel.",
        "code": (
            "pie title Traffic Sources\n"
            '    "Search" : 52\n'
            '    "Direct" : 31\n'
            '    "Social" : 17\n'
        ),
    },
]


def list_starter_templates() -> List[Dict[str, str]]:
    return [
        {"id": t["id"], "name": t["name"], "description": t["description"]}
        for t in STARTER_TEMPLATES
    ]


def get_starter_template(template_id: str) -> str:
    for template in STARTER_TEMPLATES:
        if template["id"] == template_id:
            return template["code"]
    return ""
