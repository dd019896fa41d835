from typing import Dict, Optional

import aws_cdk as cdk
from aws_cdk import Stack

from app import create_app


def synth_stacks(context: Optional[Dict] = None) -> Dict[str, Stack]:
    app = create_app(cdk.App(context=context or {}), prefix="Test")
    return {name: app.node.find_child(f"Test{name}Stack") for name in ("Network", "Compute", "PrivateLink")}
