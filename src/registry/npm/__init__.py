"""npm ecosystem support (npm, yarn and pnpm projects).

- manifest.py: package.json parsing
- lockfile_parser.py: package-lock.json, yarn.lock and pnpm-lock.yaml parsers
- config_parser.py: .npmrc and .yarnrc.yml registry configuration
- workspace.py: npm/yarn workspaces and pnpm-workspace.yaml discovery
- client.py: existence checks against the public npm registry
"""
