"""Built-in scene templates."""

import json

DEFAULT_TEMPLATE_ID = "default"

_INDEX_TS = """import { engine, Transform, MeshRenderer, Material } from '@dcl/sdk/ecs'
import { Vector3, Color4 } from '@dcl/sdk/math'
import { setupUI } from './ui'

export function main() {
  // Create a red cube
  const cube = engine.addEntity()
  Transform.create(cube, {
    position: Vector3.create(8, 1, 8)
  })
  MeshRenderer.setBox(cube)
  Material.setPbrMaterial(cube, {
    albedoColor: Color4.create(1, 0, 0, 1)
  })

  setupUI()
}
"""

_UI_TSX = """import ReactEcs, { ReactEcsRenderer, UiEntity, Label } from '@dcl/sdk/react-ecs'

export function setupUI() {
  ReactEcsRenderer.setUiRenderer(() => (
    <UiEntity
      uiTransform={{
        width: 200,
        height: 50,
        position: { top: 20, left: 20 }
      }}
    >
      <Label
        value="Welcome to Decentraland!"
        fontSize={18}
        color={{ r: 1, g: 1, b: 1, a: 1 }}
      />
    </UiEntity>
  ))
}
"""

DEFAULT_TEMPLATE: dict[str, str] = {
    "scene.json": json.dumps(
        {
            "main": "bin/index.js",
            "runtimeVersion": "7",
            "display": {"title": "My Scene", "favicon": "favicon_asset"},
            "scene": {"parcels": ["0,0"], "base": "0,0"},
        },
        indent=2,
    ),
    "package.json": json.dumps(
        {
            "name": "dcl-scene",
            "version": "1.0.0",
            "dependencies": {"@dcl/sdk": "^7.11.2"},
        },
        indent=2,
    ),
    "tsconfig.json": json.dumps(
        {
            "compilerOptions": {
                "target": "ES2020",
                "module": "ESNext",
                "moduleResolution": "node",
                "strict": True,
                "esModuleInterop": True,
                "skipLibCheck": True,
                "forceConsistentCasingInFileNames": True,
                "resolveJsonModule": True,
                "jsx": "react",
                "jsxFactory": "ReactEcs.createElement",
            },
            "include": ["src/**/*"],
            "exclude": ["node_modules", "bin"],
        },
        indent=2,
    ),
    "/src/index.ts": _INDEX_TS,
    "/src/ui.tsx": _UI_TSX,
}
